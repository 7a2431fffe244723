from enum import Enum


class Language(str, Enum):
    EN = "en"
    HI = "hi"
