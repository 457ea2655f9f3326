"""Measurement flow control.

Everything that decides what to measure when, as opposed to how to talk to the
hardware (see :doc:`lasercal.drivers`).
"""

pass
