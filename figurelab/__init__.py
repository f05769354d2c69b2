"""FigureLab - a 2D figure editor engine."""

__version__ = "1.0.0"
