"""ParkPulse booking core: business errors, read models and transactions."""
