from .service import WatchlistService

__all__ = ['WatchlistService']
