"""SoulPet progression engine: companion growth from wellbeing challenges"""

__version__ = "0.1.0"
