"""Domain Layer: models, events and interfaces shared by core and infrastructure."""
