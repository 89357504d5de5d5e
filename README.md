# pgproto

Low-level pieces of the PostgreSQL frontend/backend protocol, in pure Python
with no third-party dependencies. It is meant as a building block for
higher-level clients.

It assumes that the server's `client_encoding` is `UTF8`.

## Modules

- `pgproto.frontend`: builds the messages a client sends, one function per
  message: `startup_message`, `query`, `parse`, `bind`, `describe`,
  `execute`, `sync`, `close`, `copy_data`, `copy_done`, `copy_fail`,
  `password_message`, `sasl_initial_response`, `sasl_response`,
  `ssl_request`, `cancel_request` and `terminate`. Each returns the complete
  message as `bytes`. `bind` takes a `serializer` callable that returns the
  encoded bytes of a value, or `None` for NULL; an exception raised by it is
  wrapped in `ConversionError`, and encoding problems raise
  `SerializationError` (both subclasses of `BindError`).
- `pgproto.scalars`: binary encoding and decoding of scalar types: `bool`,
  `bytea`, `text`, `"char"`, `int2`, `int4`, `int8`, `oid`, `pg_lsn`,
  `float4`, `float8`, `hstore` (to and from a `dict`), `varbit` (`Varbit`),
  `timestamp`, `date`, `time`, `macaddr` and `uuid`. Timestamps, dates and
  times are plain integers counted from 2000-01-01 or from midnight.
- `pgproto.compound`: arrays (`array_to_sql`, `array_from_sql`, `Array`,
  `ArrayDimension`), ranges (`range_to_sql`, `empty_range_to_sql`,
  `range_from_sql`, `Range`, `RangeBound`, `BoundKind`), `point`, `box`,
  `path` (`Point`, `Box`, `Path`) and `inet` (`Inet`, using the
  `ipaddress` module).
- `pgproto.core`: `checked_i16`, `checked_i32`, `nullable` (length-prefixed
  value framing, `None` written as length -1) and `DecodeError`.
- `pgproto.sasl`: the client side of SCRAM-SHA-256 and SCRAM-SHA-256-PLUS
  (`ScramSha256`, `ChannelBinding`, `ScramError`), plus the message parsers
  `parse_server_first_message` and `parse_server_final_message`.
- `pgproto.auth`: `md5_hash`, the reply to an MD5 password challenge.
- `pgproto.password`: pre-hashed passwords for `ALTER ROLE ... PASSWORD`
  (`scram_sha_256`, `md5`).
- `pgproto.escape`: `escape_literal` and `escape_identifier`.
- `pgproto.catalog`: readers for the server's catalog sources: `DatParser`
  for `.dat` files, `parse_types` for `pg_type.dat` with `pg_range.dat`
  (yielding `CatalogType` entries keyed by OID), `parse_errcodes` for
  `errcodes.txt`, and `snake_to_camel`.

## Examples

Build a simple query message:

```python
from pgproto import frontend

frontend.query("SELECT 1")   # b'Q\x00\x00\x00\rSELECT 1\x00'
```

Encode and decode values:

```python
from pgproto import compound, scalars

assert scalars.int4_from_sql(scalars.int4_to_sql(42)) == 42

data = compound.array_to_sql(
    [compound.ArrayDimension(length=2, lower_bound=1)],
    25,
    ["a", None],
    lambda v: None if v is None else v.encode(),
)
array = compound.array_from_sql(data)
assert array.has_nulls
assert list(array.values()) == [b"a", None]
```

Escape values for SQL text:

```python
from pgproto.escape import escape_identifier, escape_literal

escape_identifier('my"table')   # '"my""table"'
escape_literal("it's")          # "'it''s'"
escape_literal("a\\b")          # " E'a\\\\b'"
```

Run a SCRAM exchange, where `server_first` and `server_final` are the
payloads of the server's `AuthenticationSASLContinue` and
`AuthenticationSASLFinal` messages:

```python
from pgproto.sasl import ChannelBinding, ScramSha256

password = b"password"
scram = ScramSha256(password, ChannelBinding.unsupported())
first = scram.message()        # send in SASLInitialResponse
scram.update(server_first)
final = scram.message()        # send in SASLResponse
scram.finish(server_final)     # raises ScramError on failure
```

Read error codes:

```python
from pgproto.catalog import parse_errcodes

parse_errcodes("22012    E    ERRCODE_DIVISION_BY_ZERO    division_by_zero\n")
# {'22012': ['DIVISION_BY_ZERO']}
```

Malformed input raises an exception: decoders raise `DecodeError` (a
`ValueError`), and encoders raise `ValueError` for values that do not fit.

## What it does not do

The package only builds and reads bytes. It does not open connections,
negotiate TLS, or parse the messages the server sends; those are left to the
code that uses it.

## Tests

```
pip install -e ".[test]"
pytest
```