import json
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd


class CSVFileAdapter:
    def __init__(self, base_path: Union[str, Path] = "."):
        self.base_path = Path(base_path)

    def read_csv(self, filename: str, **kwargs) -> pd.DataFrame:
        return pd.read_csv(self.base_path / filename, **kwargs)

    def write_csv(self, data: pd.DataFrame, filename: str, **kwargs) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)
        data.to_csv(self.base_path / filename, index=False, **kwargs)

    def write_dict_list(self, data: List[Dict[str, Any]], filename: str) -> None:
        self.write_csv(pd.DataFrame(data), filename)

    def file_exists(self, filename: str) -> bool:
        return (self.base_path / filename).exists()


class JSONFileAdapter:
    def __init__(self, base_path: Union[str, Path] = "."):
        self.base_path = Path(base_path)

    def read_json(self, filename: str) -> Any:
        with open(self.base_path / filename, "r") as f:
            return json.load(f)

    def write_json(self, data: Any, filename: str) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)
        with open(self.base_path / filename, "w") as f:
            json.dump(data, f, indent=2)

    def file_exists(self, filename: str) -> bool:
        return (self.base_path / filename).exists()
