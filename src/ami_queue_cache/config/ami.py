import os

from .loader import section


class Ami:
    def __init__(self, config: dict | None = None) -> None:
        ami_cfg = section(config, "ami")
        secret_env = str(ami_cfg.get("secret_env", "AMI_SECRET"))

        self.HOST: str = str(ami_cfg.get("host", os.getenv("AMI_HOST", "127.0.0.1")))
        self.PORT: int = int(ami_cfg.get("port", os.getenv("AMI_PORT", "5038")))
        self.USERNAME: str | None = ami_cfg.get("username") or os.getenv("AMI_USERNAME")
        self.SECRET: str | None = os.getenv(secret_env)
        self.EVENTS: str = str(ami_cfg.get("events", os.getenv("AMI_EVENTS", "on")))

        if not 0 < self.PORT < 65536:
            raise ValueError(f"AMI port out of range: {self.PORT}")

    def validate(self) -> None:
        """Raise ``ValueError`` naming any missing credential."""
        required = [("AMI_USERNAME", self.USERNAME), ("AMI_SECRET", self.SECRET)]
        missing = [name for name, val in required if not val]
        if missing:
            raise ValueError(f"Missing AMI credentials: {', '.join(missing)}")
