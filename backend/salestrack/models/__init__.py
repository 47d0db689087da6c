from .territory import Representative, Client
from .catalog import Article, Gift, Pack, PackArticle
from .sales import Sale

__all__ = [
    'Representative', 'Client',
    'Article', 'Gift', 'Pack', 'PackArticle',
    'Sale',
]
