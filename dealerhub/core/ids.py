import uuid

# prefixes in use: usr key dlr pm pl ptl car led txn com sin aud obx idm


def gen_id(prefix: str) -> str:
    """Prefixed opaque primary key, e.g. ``car_3f2a...``; the prefix names the table."""
    return f"{prefix}_{uuid.uuid4().hex}"
