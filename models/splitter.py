from pydantic import BaseModel

# A value starting with U+001F uses U+001F as its delimiter, so that
# individual values may contain pipes.
ALTERNATIVE_DELIMITER = "\x1f"


class Splitter(BaseModel):
    values_string: str
    values: list[str] = []

    def split_values(self):
        """Split a pipe-separated multi-value parameter into an ordered set.

        Empty entries are kept (the caller decides whether they are an error),
        duplicates are dropped keeping the first occurrence."""
        if self.values_string == "":
            self.values = []
            return self.values
        if self.values_string.startswith(ALTERNATIVE_DELIMITER):
            parts = self.values_string[1:].split(ALTERNATIVE_DELIMITER)
        else:
            parts = self.values_string.split("|")
        self.values = list(dict.fromkeys(p.strip() for p in parts))
        return self.values
