from pathlib import Path
from typing import List, Optional

from ..cancellation import CancellationToken
from ..models import JudgeResult
from ..problem import CompilationOverrides, SourceFile
from .base import CompileOptions, Lang, LangCompileData, split_args


class LangPython(Lang):
    name = "Python"
    extensions = ("py",)

    async def _compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        options: CompileOptions,
    ) -> JudgeResult[LangCompileData]:
        output_path = self.artifact_path(src, Path(src.path).stem + ".pyc")
        overrides = options.overrides or CompilationOverrides()
        compiler = overrides.compiler or self.settings.compilation.python_compiler
        args = overrides.compiler_args if overrides.compiler_args is not None else self.settings.compilation.python_args

        skip, digest = self.check_hash(src, output_path, f"{compiler}{args}", force)
        if skip:
            return JudgeResult.ok(LangCompileData(output_path, digest))

        cmd = [
            compiler,
            *split_args(args),
            "-c",
            f"import py_compile; py_compile.compile({src.path!r}, cfile={output_path!r}, doraise=True)",
        ]
        failure = await self._execute_compiler(cmd, token, options)
        if failure is not None:
            return failure
        return self._check_artifact(output_path, digest)

    def get_run_command(self, target: str, overrides: Optional[CompilationOverrides] = None) -> List[str]:
        overrides = overrides or CompilationOverrides()
        runner = overrides.runner or self.settings.compilation.python_runner
        run_args = overrides.runner_args if overrides.runner_args is not None else self.settings.compilation.python_run_args
        return [runner, *split_args(run_args), target]
