import sys

if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib

# Popen(process_group=...) replaced the setpgid preexec_fn idiom in 3.11
HAS_PROCESS_GROUP = sys.version_info >= (3, 11)

__all__ = [
    "HAS_PROCESS_GROUP",
    "tomllib",
]
