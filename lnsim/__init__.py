"""lnsim - lifecycle management for simulated Lightning networks."""
