from .service import AccountProjection, AccountView, PositionView

__all__ = ['AccountProjection', 'AccountView', 'PositionView']
