from __future__ import annotations

from dataclasses import asdict

from rest_framework import serializers

from fs_core.common.money import Money
from fs_core.common.state_machine import StatusMachine


class StatusInfoField(serializers.Field):
    """
    Read-only presentation of a status: {"value", "label", "tone", "terminal"}.
    Labels and tones come from the entity's StatusMachine.
    """

    def __init__(self, machine: StatusMachine, **kwargs):
        self.machine = machine
        kwargs.setdefault("source", "status")
        kwargs["read_only"] = True
        super().__init__(**kwargs)

    def to_representation(self, value):
        return asdict(self.machine.describe(value))


class MoneyField(serializers.DecimalField):
    """
    Money in/out of the API as a 2-place decimal string.
    Incoming values are rounded half-up to the cent once.
    """

    def __init__(self, **kwargs):
        kwargs.setdefault("max_digits", 12)
        kwargs.setdefault("decimal_places", 2)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return Money.from_decimal(value).to_decimal()
