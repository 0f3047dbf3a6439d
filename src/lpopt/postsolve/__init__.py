from .mapper import reconstruct

__all__ = ["reconstruct"]
