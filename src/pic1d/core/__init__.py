"""Field state and the field-solver contract."""
