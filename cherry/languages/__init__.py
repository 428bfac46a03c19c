from .go import Go, GoBuild, GoList, GoListPackages, GoTestCover, GoVersion
