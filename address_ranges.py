from collections import namedtuple
from itertools import combinations

# ----------- Memory map constants -----------
RESET_ADDRESS   = 0
LOCK_TABLE      = (2, 3)
KEY_MIN         = 4
KEY_SIZE        = 4
HMAC_OUTPUT     = (8, 9)
EXCLUSIVE_STACK = (32, 63)
ROM_MIN         = 64
ROM_SIZE        = 1024
AFTER_AUTH_PC   = 65
AR_SIZE         = 256


class ConfigurationError(ValueError):
    pass


class AddressRange(namedtuple("AddressRange", ["min", "max"])):
    """Inclusive address window ``[min, max]``."""
    __slots__ = ()

    @property
    def size(self):
        return self.max - self.min + 1

    def contains(self, addr):
        return self.min <= addr <= self.max

    def overlaps(self, other):
        return self.min <= other.max and other.min <= self.max

    def __str__(self):
        return "[{}, {}]".format(self.min, self.max)


_REGIONS = ["lock_table", "key", "hmac_output", "exclusive_stack", "rom", "attested"]


class AddressRanges(namedtuple("AddressRanges",
                               ["reset_address", "after_auth_pc"] + _REGIONS)):
    """Immutable memory map shared by every monitor.

    All regions are validated on construction: each must be a proper window,
    no two may overlap (ROM included, so data accesses can never land in
    attestation code) and the authentication checkpoint must sit strictly
    inside ROM.
    """
    __slots__ = ()

    def __new__(cls,
                reset_address=RESET_ADDRESS,
                after_auth_pc=AFTER_AUTH_PC,
                lock_table=LOCK_TABLE,
                key=(KEY_MIN, KEY_MIN + KEY_SIZE - 1),
                hmac_output=HMAC_OUTPUT,
                exclusive_stack=EXCLUSIVE_STACK,
                rom=(ROM_MIN, ROM_MIN + ROM_SIZE - 1),
                attested=(ROM_MIN + ROM_SIZE, ROM_MIN + ROM_SIZE + AR_SIZE)):
        self = super().__new__(cls, reset_address, after_auth_pc,
                               AddressRange(*lock_table),
                               AddressRange(*key),
                               AddressRange(*hmac_output),
                               AddressRange(*exclusive_stack),
                               AddressRange(*rom),
                               AddressRange(*attested))
        self._validate()
        return self

    @classmethod
    def from_options(cls, rom_size=ROM_SIZE, key_size=KEY_SIZE, ar_size=AR_SIZE):
        rom_max = ROM_MIN + rom_size - 1
        # the attested region max keeps the +size bound (one address wider than size)
        return cls().replace(key=(KEY_MIN, KEY_MIN + key_size - 1),
                             rom=(ROM_MIN, rom_max),
                             attested=(rom_max + 1, rom_max + 1 + ar_size))

    def replace(self, **changes):
        fields = self._asdict()
        fields.update(changes)
        return type(self)(**fields)

    # Shorthands
    @property
    def key_min(self):
        return self.key.min

    @property
    def key_max(self):
        return self.key.max

    @property
    def rom_min(self):
        return self.rom.min

    @property
    def rom_max(self):
        return self.rom.max

    @property
    def rom_size(self):
        return self.rom.size

    @property
    def ar_min(self):
        return self.attested.min

    @property
    def ar_max(self):
        return self.attested.max

    def regions(self):
        return [(name, getattr(self, name)) for name in _REGIONS]

    def _validate(self):
        if self.reset_address < 0:
            raise ConfigurationError("reset address {} is negative".format(self.reset_address))
        for name, region in self.regions():
            if region.min < 0:
                raise ConfigurationError("{} range {} starts below zero".format(name, region))
            if region.max < region.min:
                raise ConfigurationError("{} range {} is inverted".format(name, region))
        if self.rom.size < 3:
            raise ConfigurationError(
                "rom range {} must hold a first, a middle and a last instruction".format(self.rom))
        if not self.rom.min < self.after_auth_pc < self.rom.max:
            raise ConfigurationError(
                "after-auth pc {} is not inside rom {}".format(self.after_auth_pc, self.rom))
        for (name_a, a), (name_b, b) in combinations(self.regions(), 2):
            if a.overlaps(b):
                raise ConfigurationError("{} {} overlaps {} {}".format(name_a, a, name_b, b))
        for name, region in self.regions():
            if region.contains(self.reset_address):
                raise ConfigurationError(
                    "reset address {} falls inside {} {}".format(self.reset_address, name, region))

    def check_width(self, addr_width):
        limit = 1 << addr_width
        for name, region in self.regions():
            if region.max >= limit:
                raise ConfigurationError(
                    "{} {} does not fit a {}-bit address bus".format(name, region, addr_width))
        return self


DEFAULT_RANGES = AddressRanges()
