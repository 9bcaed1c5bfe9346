import os

# ─── HEAP SIZING ───────────────────────────────────────────────────────────────
DEFAULT_HEAP_CUTOFF_RATIO = 0.8
DEFAULT_HEAP_LIMIT_CAP = 500  # MB

HEAP_CUTOFF_RATIO = float(
    os.getenv("FLOE_HEAP_CUTOFF_RATIO", str(DEFAULT_HEAP_CUTOFF_RATIO))
)
HEAP_LIMIT_CAP = int(os.getenv("FLOE_HEAP_LIMIT_CAP", str(DEFAULT_HEAP_LIMIT_CAP)))

# ─── CONTAINER ENVIRONMENT ─────────────────────────────────────────────────────
CLASSPATH_VARIABLE = "CLASSPATH"
PWD_REFERENCE = "$PWD"

DEFAULT_APPLICATION_CLASSPATH = [
    "$HADOOP_CONF_DIR",
    "$HADOOP_COMMON_HOME/share/hadoop/common/*",
    "$HADOOP_COMMON_HOME/share/hadoop/common/lib/*",
    "$HADOOP_HDFS_HOME/share/hadoop/hdfs/*",
    "$HADOOP_HDFS_HOME/share/hadoop/hdfs/lib/*",
    "$HADOOP_YARN_HOME/share/hadoop/yarn/*",
    "$HADOOP_YARN_HOME/share/hadoop/yarn/lib/*",
]

APPLICATION_CLASSPATH = [
    entry
    for entry in os.getenv(
        "FLOE_APPLICATION_CLASSPATH", ",".join(DEFAULT_APPLICATION_CLASSPATH)
    ).split(",")
    if entry.strip()
]

ENV_APP_ID = "FLOE_APP_ID"
ENV_HEAP_OPTS = "FLOE_HEAP_OPTS"
ENV_TOKEN_FILE = "FLOE_TOKEN_FILE"
ENV_LOCAL_RESOURCES = "FLOE_LOCAL_RESOURCES"

# ─── STAGING ───────────────────────────────────────────────────────────────────
STAGING_NAMESPACE = ".floe"

# ─── CREDENTIALS ───────────────────────────────────────────────────────────────
TOKEN_FILE = os.getenv(ENV_TOKEN_FILE, None)

# ─── S3 ────────────────────────────────────────────────────────────────────────
S3_ENDPOINT = os.getenv("FLOE_S3_ENDPOINT", None)  # For MinIO or localstack
S3_REGION = os.getenv("FLOE_S3_REGION", "us-east-1")
S3_ACCESS_KEY = os.getenv("FLOE_S3_ACCESS_KEY", None)
S3_SECRET_KEY = os.getenv("FLOE_S3_SECRET_KEY", None)
S3_DELEGATION_ROLE_ARN = os.getenv("FLOE_S3_DELEGATION_ROLE_ARN", None)
S3_TOKEN_DURATION = int(os.getenv("FLOE_S3_TOKEN_DURATION", "3600"))  # seconds

# ─── CONTAINER BACKEND ─────────────────────────────────────────────────────────
PODMAN_SOCK = os.getenv("PODMAN_SOCK", "unix:///run/podman/podman.sock")
CONTAINER_WORKDIR = "/floe/work"
CONTAINER_TOKEN_FILE = "/run/floe/container_tokens"
