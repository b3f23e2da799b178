class CLIException(Exception):
    def __init__(self, *args, description: str = "Something happend..."):
        self.description = description
        super().__init__(description, *args)

    def __str__(self) -> str:
        return self.description
