import click
from eth_utils import is_address, to_checksum_address


class ChecksumAddress(click.ParamType):
    """An ethereum address option value, converted to its checksum form."""

    name = "checksum_address"

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"{value} is not a valid ethereum address", param, ctx)
        return to_checksum_address(value)
