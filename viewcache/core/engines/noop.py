class NoopEngine:
    # passthrough engine: returns template content untouched. registered for "*" by default.
    name = "noop"

    def render_sync(self, content, options):
        return content if isinstance(content, str) else str(content)

    async def render(self, content, options):
        return self.render_sync(content, options)
