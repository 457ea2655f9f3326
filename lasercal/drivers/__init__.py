"""This package contains device software.

Interfaces to the real-time signal-processing platform ("signal host") and to
the signal units running on it, e.g.
 - the laser tester, feeding a voltage to one of two lasers
 - the power meter averaging unit
 - laser controller, waveform and waveform buffer units
"""

pass
