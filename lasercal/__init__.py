"""This is the root package of lasercal.

It doesn't do anything except marking this folder to be a python project.

Project structure
-----------------

- :doc:`lasercal.analysis`: The laser transfer function, coefficient fitting,
  calibration tables and plots.
- :doc:`lasercal.controller`: Measurement flow: power meter range control,
  measurement sessions and batch calibration of several lasers.
- :doc:`lasercal.drivers`: Signal host communication and handles to the signal
  units running on it.
- :doc:`lasercal.util`: Operator console and asyncio helpers.
- :doc:`lasercal.test`: Test modules, automatically run by pytest.
"""

pass  # explicitly do nothing
