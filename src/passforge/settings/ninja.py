from decouple import config

NINJA_EXTRA = {
    "NUM_PROXIES": config("NUM_PROXIES", default=None, cast=lambda v: int(v) if v else None),
}
