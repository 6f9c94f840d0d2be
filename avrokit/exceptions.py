"""avrokit exceptions.

This module defines the exception hierarchy for avrokit. All exceptions
inherit from :class:`AvroException`.

The hierarchy follows how a failure affects the caller:

- :class:`FramingException` - the byte stream itself is malformed
  (truncated input, bad magic, sync mismatch, unfinished block). The
  current stream cannot be trusted beyond this point.
- :class:`AvroValueException` - a single value is malformed (varint
  overflow, negative length, bad union or enum index). The current record
  is lost; a container reader may resume at the next block.
- :class:`BindingException` - a programming error binding data to a
  destination (schema not set, missing destination field).
- :class:`InvalidUnionValueException` - a value to write matches none of
  the union branches. Raised before anything is written for that value.
- :class:`SchemaParseException` - a schema definition cannot be parsed.

Example:
    Handling decode errors::

        from avrokit.exceptions import AvroException, FramingException

        try:
            for record in reader:
                handle(record)
        except FramingException as e:
            print(f"Corrupted file: {e}")
        except AvroException as e:
            print(f"Decode error: {e}")
"""


class AvroException(Exception):
    """Base class for all avrokit exceptions.

    Args:
        message: The error message describing the exception.
        cause: The underlying exception that caused this error, if any.

    Attributes:
        cause: The underlying cause of this exception, if any.
    """

    def __init__(self, message: str = "", cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class IllegalStateException(AvroException):
    """Raised when an operation is invoked on an object in the wrong state.

    Example:
        - Writing to a container file writer after it was closed
        - Reading from a container file reader after it was closed
    """
    pass


class ConfigurationException(AvroException):
    """Raised when a configuration value is invalid."""
    pass


class UnsupportedCodecException(AvroException):
    """Raised when a container file names a compression codec that is not registered."""

    def __init__(self, codec_name: str):
        super().__init__(f"Unsupported codec: {codec_name!r}")
        self.codec_name = codec_name


# Framing errors


class FramingException(AvroException):
    """Base class for errors in the framing of the byte stream."""
    pass


class UnexpectedEOFException(FramingException, EOFError):
    """Raised when the input ends in the middle of a value."""

    def __init__(self, message: str = "Unexpected end of input", cause: Exception = None):
        super().__init__(message, cause)


class NotAvroFileException(FramingException):
    """Raised when the input does not start with the container file magic."""

    def __init__(self, message: str = "Not an Avro data file", cause: Exception = None):
        super().__init__(message, cause)


class InvalidSyncException(FramingException):
    """Raised when a block's sync marker differs from the header's sync marker.

    Indicates corrupted data. The reader stops at this point.
    """

    def __init__(self, expected: bytes, actual: bytes):
        super().__init__(f"Invalid sync: expected {expected.hex()}, got {actual.hex()}")
        self.expected = expected
        self.actual = actual


class BlockNotFinishedException(FramingException):
    """Raised when the next block is requested before the current one is fully read."""

    def __init__(self, position: int, block_size: int):
        super().__init__(
            f"Block read is unfinished: position {position} of {block_size} bytes"
        )
        self.position = position
        self.block_size = block_size


class InvalidBlockSizeException(FramingException):
    """Raised when a container block declares a negative or oversized byte length."""

    def __init__(self, block_size: int):
        super().__init__(f"Block size invalid or too large: {block_size}")
        self.block_size = block_size


# Value errors


class AvroValueException(AvroException):
    """Base class for malformed values."""
    pass


class IntOverflowException(AvroValueException):
    """Raised when a value does not fit in an int (32 bits)."""

    def __init__(self, message: str = "Overflowed an int value", cause: Exception = None):
        super().__init__(message, cause)


class LongOverflowException(AvroValueException):
    """Raised when a value does not fit in a long (64 bits)."""

    def __init__(self, message: str = "Overflowed a long value", cause: Exception = None):
        super().__init__(message, cause)


class NegativeBytesLengthException(AvroValueException):
    """Raised when a bytes value declares a negative length."""

    def __init__(self, length: int):
        super().__init__(f"Negative bytes length: {length}")
        self.length = length


class InvalidStringLengthException(AvroValueException):
    """Raised when a string value declares a negative length."""

    def __init__(self, length: int):
        super().__init__(f"Invalid string length: {length}")
        self.length = length


class InvalidBoolException(AvroValueException):
    """Raised in strict mode when a boolean byte is neither 0x00 nor 0x01."""

    def __init__(self, value: int):
        super().__init__(f"Invalid bool value: 0x{value:02x}")
        self.value = value


class UnionTypeOverflowException(AvroValueException):
    """Raised when the branch index of a union is out of range."""

    def __init__(self, index: int, branches: int):
        super().__init__(f"Union type overflow: index {index} for {branches} branches")
        self.index = index
        self.branches = branches


class InvalidEnumIndexException(AvroValueException):
    """Raised when an enum index is outside of the symbol list."""

    def __init__(self, index: int, symbols: int):
        super().__init__(f"Invalid enum index {index} for {symbols} symbols")
        self.index = index
        self.symbols = symbols


class InvalidFixedSizeException(AvroValueException):
    """Raised for a fixed schema with an invalid size, or a fixed value of the wrong length."""

    def __init__(self, message: str = "Invalid Fixed type size", cause: Exception = None):
        super().__init__(message, cause)


# Binding errors


class BindingException(AvroException):
    """Base class for errors binding schema fields to destinations."""
    pass


class SchemaNotSetException(BindingException):
    """Raised when a datum reader or writer is used before a schema was set."""

    def __init__(self, message: str = "Schema not set", cause: Exception = None):
        super().__init__(message, cause)


class FieldDoesNotExistException(BindingException):
    """Raised when a schema field has no counterpart in the destination.

    Attributes:
        field: Name of the schema field that could not be resolved.
    """

    def __init__(self, field: str, shape: str = ""):
        message = f"Field does not exist: [{field}]"
        if shape:
            message = f"{message} in {shape}"
        super().__init__(message)
        self.field = field


class FieldBindingException(BindingException):
    """Raised when a destination attribute cannot hold the values of its schema field."""
    pass


class InvalidUnionValueException(AvroException):
    """Raised when a value to write matches none of the union's branches."""
    pass


# Schema errors


class SchemaParseException(AvroException):
    """Base class for schema parse failures."""
    pass


class InvalidSchemaException(SchemaParseException):
    """Raised when a schema definition is malformed."""

    def __init__(self, message: str = "Invalid schema", cause: Exception = None):
        super().__init__(message, cause)


class UnknownSchemaTypeException(SchemaParseException):
    """Raised when a type name refers to nothing defined so far."""

    def __init__(self, type_name: str):
        super().__init__(f"Unknown type name: {type_name}")
        self.type_name = type_name


class NestedUnionException(SchemaParseException):
    """Raised when a union directly contains another union."""

    def __init__(self, message: str = "Nested unions are not allowed", cause: Exception = None):
        super().__init__(message, cause)


class InvalidBoolWarning(UserWarning):
    """Issued when a boolean byte is neither 0x00 nor 0x01 and decoding is lenient.

    Turn it into an error with ``warnings.simplefilter("error", InvalidBoolWarning)``
    or decode with ``strict_booleans=True``.
    """
