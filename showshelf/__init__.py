# ShowShelf - local show library index
__version__ = "0.1.0"
