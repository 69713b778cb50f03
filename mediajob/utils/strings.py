"""String helpers."""


def capitalize_first(value: str) -> str:
    """Readable label for a raw status code (``extracting_product`` -> ``Extracting product``)."""
    if not value:
        return value
    return value[0].upper() + value[1:].replace("_", " ")
