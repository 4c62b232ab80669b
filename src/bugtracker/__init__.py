"""
Bug tracker package.

The FastAPI application lives in ``bugtracker.main`` (``bugtracker.main:app``);
the asynchronous client and its state synchronizer live in
``bugtracker.client``.
"""

__version__ = "0.1.0"
