"""Agency: backpack files on feature branches, stripped on emit."""
