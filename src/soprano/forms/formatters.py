from typing import Union

Number = Union[int, float]


def format_indian_number(amount: Number) -> str:
    """Group digits the Indian way: 12,34,567.50"""
    abs_amount = abs(amount)
    if float(abs_amount).is_integer():
        whole, fraction = str(int(abs_amount)), ""
    else:
        whole, fraction = f"{abs_amount:.2f}".split(".")
        fraction = f".{fraction}"

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    sign = "-" if amount < 0 else ""
    return f"{sign}{whole}{fraction}"


def format_currency(amount: Number) -> str:
    formatted = f"₹{format_indian_number(abs(amount))}"
    return f"-{formatted}" if amount < 0 else formatted


def format_currency_for_speech(amount: Number) -> str:
    """Spell the currency for text-to-speech: 5000 -> '5,000 rupees'."""
    suffix = "rupee" if abs(amount) == 1 else "rupees"
    formatted = f"{format_indian_number(abs(amount))} {suffix}"
    return f"minus {formatted}" if amount < 0 else formatted
