from web3.types import HexBytes

# ---------------- helpers ----------------
def to_hex(x):
    if x is None: return None
    if isinstance(x, HexBytes): return x.to_0x_hex()
    if isinstance(x, (bytes, bytearray)): return "0x" + bytes(x).hex()
    if isinstance(x, int): return hex(x)
    return str(x)

def hex_to_int(x):
    if x is None: return None
    if isinstance(x, int): return x
    if isinstance(x, bytes): return int.from_bytes(x, "big")
    s = str(x)
    return int(s, 16) if s.startswith("0x") else int(s)
