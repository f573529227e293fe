"""
Исключения кодека Хаффмана.
"""


class HuffmanError(ValueError):
    pass


class HeaderError(HuffmanError):
    """Заголовок (сериализованное дерево) повреждён или обрезан."""


class CorruptStreamError(HuffmanError):
    """Битовый поток обрезан или не соответствует дереву."""
