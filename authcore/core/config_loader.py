"""
AUTHCORE - Config Loader Implementation
Charge la configuration client depuis fichiers YAML.
"""

from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .errors import ConfigIntegrityError
from .interfaces import ClientConfig, IConfigLoader


class ConfigLoader(IConfigLoader):
    """Chargement de la configuration client depuis fichiers YAML."""

    def __init__(self, configs_path: str = "fixtures/configs"):
        self.configs_path = Path(configs_path)

    def load(self, name: str) -> ClientConfig:
        """
        Charge la config nommée (<configs_path>/<name>.yaml).

        Args:
            name: Nom du fichier sans extension

        Returns:
            Configuration validée

        Raises:
            ConfigIntegrityError: Si fichier inexistant ou structure invalide
        """
        config_file = self.configs_path / f"{name}.yaml"

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration non trouvée: {config_file}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        if not isinstance(data, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        # Les clés peuvent être regroupées sous "client:"
        if "client" in data and isinstance(data["client"], dict):
            data = data["client"]

        return self.from_dict(data)

    def from_dict(self, data: Mapping[str, Any]) -> ClientConfig:
        """
        Construit et valide une configuration.

        Raises:
            ConfigIntegrityError: Champ manquant ou invalide
        """
        try:
            return ClientConfig.model_validate(dict(data))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ConfigIntegrityError(f"Configuration invalide ({fields}): {e}")
