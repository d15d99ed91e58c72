"""Settings package for the tourism booking core.

`base.py` holds the configuration shared by every environment, including
the reservation and plan policy knobs. `dev.py`, `prod.py` and `test.py`
override it per environment.
"""
