"""Replenishment scheduling and transfer orchestration for a container-based factory."""
