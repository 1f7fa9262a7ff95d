"""Decoding of token metadata program instructions that create metadata accounts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence, TypeVar

from .codec import BorshError, BorshReader, b58encode
from .utils import prepare_input_accounts as _resolve_accounts

INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT = "CreateMetadataAccount"
INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V2 = "CreateMetadataAccountV2"
INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V3 = "CreateMetadataAccountV3"
INSTRUCTION_TYPE_CREATE = "Create"

_ZERO_ADDRESS = b58encode(bytes(32))

E = TypeVar("E", bound=Enum)


class UseMethod(str, Enum):
    BURN = "Burn"
    MULTIPLE = "Multiple"
    SINGLE = "Single"


class TokenStandard(str, Enum):
    NON_FUNGIBLE = "NonFungible"
    FUNGIBLE_ASSET = "FungibleAsset"
    FUNGIBLE = "Fungible"
    NON_FUNGIBLE_EDITION = "NonFungibleEdition"
    PROGRAMMABLE_NON_FUNGIBLE = "ProgrammableNonFungible"


@dataclass
class Creator:
    address: str = _ZERO_ADDRESS
    verified: bool = False
    share: int = 0


@dataclass
class Collection:
    verified: bool = False
    key: str = _ZERO_ADDRESS


@dataclass
class Uses:
    use_method: UseMethod = UseMethod.BURN
    remaining: int = 0
    total: int = 0


@dataclass
class CollectionDetails:
    name: str = "V1"
    size: int = 0


@dataclass
class Data:
    name: str = ""
    symbol: str = ""
    uri: str = ""
    seller_fee_basis_points: int = 0
    creators: list[Creator] = field(default_factory=list)


@dataclass
class DataV2:
    name: str = ""
    symbol: str = ""
    uri: str = ""
    seller_fee_basis_points: int = 0
    creators: list[Creator] = field(default_factory=list)
    collection: Collection | None = None
    uses: Uses | None = None


@dataclass
class AssetData:
    name: str = ""
    symbol: str = ""
    uri: str = ""
    seller_fee_basis_points: int = 0
    creators: list[Creator] = field(default_factory=list)
    primary_sale_happened: bool = False
    is_mutable: bool = False
    token_standard: TokenStandard = TokenStandard.NON_FUNGIBLE
    collection: Collection | None = None
    uses: Uses | None = None
    collection_details: CollectionDetails | None = None
    rule_set: str | None = None


@dataclass
class PrintSupply:
    """Print supply of an asset: "Zero", "Limited" (with `val`) or "Unlimited"."""

    name: str = "Zero"
    val: int | None = None


@dataclass
class CreateArgs:
    name: str = "V1"
    asset_data: AssetData = field(default_factory=AssetData)
    decimals: int | None = None
    print_supply: PrintSupply | None = None


@dataclass
class CreateMetadataAccountArgs:
    data: Data = field(default_factory=Data)
    is_mutable: bool = False


@dataclass
class CreateMetadataAccountArgsV2:
    data: DataV2 = field(default_factory=DataV2)
    is_mutable: bool = False


@dataclass
class CreateMetadataAccountArgsV3:
    data: DataV2 = field(default_factory=DataV2)
    is_mutable: bool = False
    collection_details: CollectionDetails | None = None


@dataclass
class MetaInstruction:
    """A decoded metadata instruction; arguments of other kinds keep their defaults."""

    instruction_type: str = ""
    create_args: CreateArgs = field(default_factory=CreateArgs)
    create_metadata_account_args: CreateMetadataAccountArgs = field(
        default_factory=CreateMetadataAccountArgs
    )
    create_metadata_account_args_v2: CreateMetadataAccountArgsV2 = field(
        default_factory=CreateMetadataAccountArgsV2
    )
    create_metadata_account_args_v3: CreateMetadataAccountArgsV3 = field(
        default_factory=CreateMetadataAccountArgsV3
    )


@dataclass
class Arg:
    """Instruction type together with the arguments of that type only."""

    instruction_type: str = ""
    create_args: CreateArgs | None = None
    create_metadata_account_args: CreateMetadataAccountArgs | None = None
    create_metadata_account_args_v2: CreateMetadataAccountArgsV2 | None = None
    create_metadata_account_args_v3: CreateMetadataAccountArgsV3 | None = None


@dataclass
class InputAccounts:
    metadata: str | None = None
    mint: str | None = None
    mint_authority: str | None = None
    payer: str | None = None
    update_authority: str | None = None
    system_program: str | None = None
    rent: str | None = None


def _read_enum(cls: type[E], reader: BorshReader) -> E:
    tag = reader.read_u8()
    members = list(cls)
    if tag >= len(members):
        raise BorshError(f"invalid {cls.__name__} tag {tag}")
    return members[tag]


def _read_v1(reader: BorshReader) -> str:
    tag = reader.read_u8()
    if tag != 0:
        raise BorshError(f"invalid version tag {tag}")
    return "V1"


def _read_address(reader: BorshReader) -> str:
    return b58encode(reader.read_pubkey())


def _read_creator(reader: BorshReader) -> Creator:
    return Creator(
        address=_read_address(reader),
        verified=reader.read_bool(),
        share=reader.read_u8(),
    )


def _read_creators(reader: BorshReader) -> list[Creator]:
    creators = reader.read_option(lambda: reader.read_vec(lambda: _read_creator(reader)))
    return creators or []


def _read_collection(reader: BorshReader) -> Collection:
    return Collection(verified=reader.read_bool(), key=_read_address(reader))


def _read_uses(reader: BorshReader) -> Uses:
    return Uses(
        use_method=_read_enum(UseMethod, reader),
        remaining=reader.read_u64(),
        total=reader.read_u64(),
    )


def _read_collection_details(reader: BorshReader) -> CollectionDetails:
    return CollectionDetails(name=_read_v1(reader), size=reader.read_u64())


def _read_data(reader: BorshReader) -> Data:
    return Data(
        name=reader.read_string(),
        symbol=reader.read_string(),
        uri=reader.read_string(),
        seller_fee_basis_points=reader.read_u16(),
        creators=_read_creators(reader),
    )


def _read_data_v2(reader: BorshReader) -> DataV2:
    return DataV2(
        name=reader.read_string(),
        symbol=reader.read_string(),
        uri=reader.read_string(),
        seller_fee_basis_points=reader.read_u16(),
        creators=_read_creators(reader),
        collection=reader.read_option(lambda: _read_collection(reader)),
        uses=reader.read_option(lambda: _read_uses(reader)),
    )


def _read_asset_data(reader: BorshReader) -> AssetData:
    return AssetData(
        name=reader.read_string(),
        symbol=reader.read_string(),
        uri=reader.read_string(),
        seller_fee_basis_points=reader.read_u16(),
        creators=_read_creators(reader),
        primary_sale_happened=reader.read_bool(),
        is_mutable=reader.read_bool(),
        token_standard=_read_enum(TokenStandard, reader),
        collection=reader.read_option(lambda: _read_collection(reader)),
        uses=reader.read_option(lambda: _read_uses(reader)),
        collection_details=reader.read_option(lambda: _read_collection_details(reader)),
        rule_set=reader.read_option(lambda: _read_address(reader)),
    )


def _read_print_supply(reader: BorshReader) -> PrintSupply:
    tag = reader.read_u8()
    if tag == 0:
        return PrintSupply("Zero")
    if tag == 1:
        return PrintSupply("Limited", reader.read_u64())
    if tag == 2:
        return PrintSupply("Unlimited")
    raise BorshError(f"invalid print supply tag {tag}")


def _read_create_args(reader: BorshReader) -> CreateArgs:
    return CreateArgs(
        name=_read_v1(reader),
        asset_data=_read_asset_data(reader),
        decimals=reader.read_option(reader.read_u8),
        print_supply=reader.read_option(lambda: _read_print_supply(reader)),
    )


def parse_instruction(bytes_stream) -> MetaInstruction:
    """Decode metadata instruction data; unknown discriminators give an empty type."""
    data = bytes(bytes_stream)
    discriminator = BorshReader(data).read_u8()
    reader = BorshReader(data[1:])
    has_args = reader.remaining() > 0
    result = MetaInstruction()

    if discriminator == 0:
        result.instruction_type = INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT
        if has_args:
            result.create_metadata_account_args = CreateMetadataAccountArgs(
                data=_read_data(reader), is_mutable=reader.read_bool()
            )
    elif discriminator == 16:
        result.instruction_type = INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V2
        if has_args:
            result.create_metadata_account_args_v2 = CreateMetadataAccountArgsV2(
                data=_read_data_v2(reader), is_mutable=reader.read_bool()
            )
    elif discriminator == 33:
        result.instruction_type = INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V3
        if has_args:
            result.create_metadata_account_args_v3 = CreateMetadataAccountArgsV3(
                data=_read_data_v2(reader),
                is_mutable=reader.read_bool(),
                collection_details=reader.read_option(
                    lambda: _read_collection_details(reader)
                ),
            )
    elif discriminator == 42:
        result.instruction_type = INSTRUCTION_TYPE_CREATE
        if has_args:
            try:
                result.create_args = _read_create_args(reader)
            except BorshError:
                result.create_args = CreateArgs()
    return result


_ARG_FIELDS = {
    INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT: "create_metadata_account_args",
    INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V2: "create_metadata_account_args_v2",
    INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V3: "create_metadata_account_args_v3",
    INSTRUCTION_TYPE_CREATE: "create_args",
}


def prepare_arg(instruction_data) -> Arg:
    """Decode instruction data into an Arg carrying only the matching arguments."""
    instruction = parse_instruction(instruction_data)
    arg = Arg(instruction_type=instruction.instruction_type)
    attribute = _ARG_FIELDS.get(instruction.instruction_type)
    if attribute is not None:
        setattr(arg, attribute, getattr(instruction, attribute))
    return arg


_CREATE_METADATA_ROLES = (
    ("metadata", 0),
    ("mint", 1),
    ("mint_authority", 2),
    ("payer", 3),
    ("update_authority", 4),
    ("system_program", 5),
    ("rent", 6),
)

_ACCOUNT_ROLES = {
    INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT: _CREATE_METADATA_ROLES,
    INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V2: _CREATE_METADATA_ROLES,
    INSTRUCTION_TYPE_CREATE_METADATA_ACCOUNT_V3: _CREATE_METADATA_ROLES,
    INSTRUCTION_TYPE_CREATE: (
        ("metadata", 0),
        ("mint", 2),
        ("payer", 4),
        ("update_authority", 5),
        ("system_program", 6),
    ),
}


def prepare_input_accounts(
    instruction_type: str, account_indices, accounts: Sequence[str]
) -> InputAccounts:
    """Name the accounts of a metadata instruction; missing positions stay None."""
    resolved = _resolve_accounts(account_indices, accounts)
    roles = _ACCOUNT_ROLES.get(instruction_type, ())
    return InputAccounts(
        **{
            role: resolved[position] if position < len(resolved) else None
            for role, position in roles
        }
    )