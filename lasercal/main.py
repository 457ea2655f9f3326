"""Run this by invoking ``python3 -m lasercal.main`` from the parent directory.

It measures the transfer functions of the lasers given on the command line
and writes the calibration tables, e.g.

    python3 -m lasercal.main --params lasercal.csv 505_green 633_red

The reason for not making this script executable is to keep the import
statements as clean and unambiguous as possible: Relative imports are used for
local modules, absolute imports for global ones.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Sequence  # pylint: disable=unused-import

import matplotlib.pyplot as plt
import numpy as np

from . import logger
from .analysis import plotting, tables
from .config import CalibrationConfig, load_config
from .controller import batch
from .controller.range_control import AmplificationRangeController
from .controller.session import MeasurementSession, make_voltages
from .controller.strategies import MeasurementMethod, make_strategy
from .drivers.signal_host import SignalHost  # pylint: disable=unused-import
from .drivers.signal_units import LaserTester, UnitRegistry
from .drivers.synapse import SynapseClient
from .errors import CalibrationError
from .util.console import ConsoleOperator, Operator

LOGGER = logging.getLogger('lasercal.main')

DEFAULT_PARAMS = 'lasercal.csv'
"""Parameter file used if none is given on the command line."""
FLUSH_INTERVAL = 7
"""Write buffered logs to disk every this many seconds."""


def make_session_factory(host: SignalHost, config: CalibrationConfig,
                         operator: Operator, voltages: np.ndarray,
                         registry: UnitRegistry = None) -> batch.SessionFactory:
    """Wire up the sessions measuring single laser channels."""
    def make_session(laser: batch.LaserSpec, channel: int) -> MeasurementSession:
        tester = LaserTester(host, config.laser_tester, registry=registry,
                             ttl_invert=config.ttl_invert)
        meter = None
        if config.measurement == MeasurementMethod.PM100D:
            meter = AmplificationRangeController(
                host, operator,
                coefficient=config.meter_coefficients[laser.wavelength_nm],
                magnitudes=config.pm100d_magnitudes,
                threshold=config.pm100d_threshold,
                accumulator=config.pm100d_accumulator,
                settle_time=config.pm100d_timer,
                initial_stage=config.pm100d_magnitudes.index(
                    config.pm100d_initial_magnitude))
        strategy = make_strategy(config.measurement, operator, meter)
        return MeasurementSession(host, tester, strategy, voltages,
                                  laser_index=laser.position,
                                  max_retries=config.max_retries,
                                  label=batch.channel_label(laser, channel))
    return make_session


async def calibrate(host: SignalHost, config: CalibrationConfig,
                    lasers: Sequence[batch.LaserSpec],
                    operator: Operator,
                    registry: UnitRegistry = None) -> batch.BatchResult:
    """Measure and fit all lasers, then write the calibration tables.

    :param registry: Tracks the signal units bound during the run.  Falls back
                to the module-wide registry if not given.
    """
    if config.measurement == MeasurementMethod.PM100D:
        batch.check_meter_coefficients(lasers, config.meter_coefficients)
    voltages = make_voltages(config.input, config.volt_range)
    driver = batch.BatchCalibrationDriver(
        lasers, make_session_factory(host, config, operator, voltages, registry),
        operator, channels=config.channels)
    result = await driver.run()
    powers = [record.output_mw for records in result.records for record in records]
    tables.write_tables(result.rows, result.voltages, powers, result.labels,
                        config.table_dir, config.coefficient_table,
                        config.power_table, splines=result.splines)
    return result


async def main(args: argparse.Namespace) -> None:
    """Calibrate the lasers given on the command line."""
    config = load_config(args.params)
    lasers = batch.parse_laser_args(args.lasers)
    logger.start_flushing_regularly(FLUSH_INTERVAL)
    LOGGER.info("Calibrating %s laser(s) by %s measurement.", len(lasers),
                config.measurement.value)
    registry = UnitRegistry()
    async with SynapseClient(config.host) as host:
        result = await calibrate(host, config, lasers, ConsoleOperator(), registry)
    if args.plot:
        plotting.plot_batch(result.rows, result.voltages,
                            [[r.output_mw for r in records] for records in result.records],
                            config.volt_range, directory=config.table_dir)
        plt.show()


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='lasercal', description="Measure and fit laser transfer functions.")
    parser.add_argument('lasers', nargs='*', metavar='WAVELENGTH[_NAME]',
                        help="One per laser, in laser tester order, e.g. 505_green.")
    parser.add_argument('--params', default=DEFAULT_PARAMS,
                        help="Parameter file (default: %(default)s).")
    parser.add_argument('--plot', action='store_true',
                        help="Plot the results when done.")
    parser.add_argument('--debug', action='store_true',
                        help="Show debug messages.")
    parser.add_argument('--log-dir', default='log',
                        help="Write logs here (default: %(default)s).")
    return parser.parse_args(argv)


def run(argv: List[str] = None) -> int:
    """Entry point of the ``lasercal`` command."""
    args = parse_args(argv)
    logger.init(args.log_dir, debug=args.debug)
    try:
        asyncio.run(main(args))
    except CalibrationError as err:
        LOGGER.error("Calibration failed: %s", err)
        return 1
    except ConnectionError as err:
        LOGGER.error("Lost connection to the signal host: %s", err)
        return 1
    except KeyboardInterrupt:
        LOGGER.info("Keyboard interrupt received. Exiting.")
        return 1
    finally:
        logger.flush_to_disk()
    return 0


# Only execute if run as main program (not on import). This also holds when the
# recommended way of running this program (see above) is used.
if __name__ == '__main__':
    sys.exit(run())
