from django import template

from ipd.utils.billing import amount_in_words, format_rupees

register = template.Library()


@register.filter
def rupees(value):
    try:
        return format_rupees(value)
    except (ArithmeticError, TypeError, ValueError):
        return value


@register.filter
def in_words(value):
    try:
        return amount_in_words(value)
    except (ArithmeticError, TypeError, ValueError):
        return ""
