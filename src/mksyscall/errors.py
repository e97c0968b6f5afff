from __future__ import annotations


class GenerateError(Exception):
    pass


class ParseError(GenerateError):
    pass


class CapacityError(GenerateError):
    pass


class FormatError(GenerateError):
    pass
