import pandas as pd


class Universe:
    """
    The base class for universe. Keeps track of the stars.
    """

    def __init__(self) -> None:
        pass

    def __repr__(self):
        str = f"{self.type} universe\n"
        str += f"{len(self.stars)} stars loaded"
        return str

    def __len__(self):
        return len(self.stars)

    def __iter__(self):
        return iter(self.stars)

    def to_dataframe(self):
        return pd.DataFrame([star.to_dict() for star in self.stars])
