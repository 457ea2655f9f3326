"""Evaluation of laser power measurements.

 - the laser transfer function and its inverse
 - fitting its coefficients to measured data
 - reading and writing calibration tables
 - plotting calibration results
"""

pass
