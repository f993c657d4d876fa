"""Roof assembly from skeleton to classified 3D lines."""
