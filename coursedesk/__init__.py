"""CourseDesk: course content records with a journaled fallback store."""

__version__ = "0.1.0"
