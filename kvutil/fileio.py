import json
from pathlib import Path

import toml


class FileIO:
    """
    Static methods for reading the configuration files kvsample understands.
    Supports: TOML, JSON, ENV.
    """
    SUPPORTED_FORMATS = ["toml", "json", "env"]
    DOTFILE_MAP = {
        ".env": "env",
    }

    @staticmethod
    def resolve_extension(path: str | Path) -> str:
        """
        Determines the effective filetype of a given path, including support for dotfiles.

        Args:
            path (str | Path): Path or filename to evaluate.

        Returns:
            str: Inferred filetype (e.g., 'toml', 'env').

        Raises:
            ValueError: If the filetype is unsupported or cannot be inferred.
        """
        path = Path(path)
        suffix = path.suffix.lstrip(".").lower()
        name = path.name.lower()

        if suffix and suffix in FileIO.SUPPORTED_FORMATS:
            return suffix

        if name in FileIO.DOTFILE_MAP:
            return FileIO.DOTFILE_MAP[name]

        raise ValueError(f"[FileIO] Unsupported or unknown filetype for path: {path}")

    @staticmethod
    def read(path: Path) -> dict:
        """
        Reads a configuration file based on its extension and returns parsed content.

        Args:
            path (Path): Path to the file.

        Returns:
            dict: Parsed configuration content.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If file extension is unsupported.
            toml.TomlDecodeError, json.JSONDecodeError: If the content does not parse.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"[FileIO.read] File not found: {path}")

        ext = FileIO.resolve_extension(path)

        if ext == "toml":
            return toml.load(path)

        elif ext == "json":
            return json.loads(path.read_text(encoding="utf-8"))

        elif ext == "env":
            content = {}
            for line in path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if line.startswith("export "):
                    line = line[len("export "):]
                if "=" in line and not line.startswith("#"):
                    k, v = line.split("=", 1)
                    content[k.strip()] = v.strip().strip('"').strip("'")
            return content

        raise ValueError(f"[FileIO.read] Unsupported format: {ext}")


read = FileIO.read
