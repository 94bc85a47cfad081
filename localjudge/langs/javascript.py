from typing import List, Optional

from ..cancellation import CancellationToken
from ..models import JudgeResult
from ..problem import CompilationOverrides, SourceFile
from .base import CompileOptions, Lang, LangCompileData, split_args


class LangJavascript(Lang):
    name = "JavaScript"
    extensions = ("js",)

    async def _compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        options: CompileOptions,
    ) -> JudgeResult[LangCompileData]:
        # Nothing to build: the script itself is the artifact
        return JudgeResult.ok(LangCompileData(src.path))

    def get_run_command(self, target: str, overrides: Optional[CompilationOverrides] = None) -> List[str]:
        overrides = overrides or CompilationOverrides()
        runner = overrides.runner or self.settings.compilation.javascript_runner
        run_args = overrides.runner_args if overrides.runner_args is not None else self.settings.compilation.javascript_run_args
        return [runner, *split_args(run_args), target]
