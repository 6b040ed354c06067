"""Core engine: state, forces, integrators, variational equations and MEGNO."""
