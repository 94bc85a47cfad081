from typing import List, Optional

from ..cancellation import CancellationToken
from ..config import IS_WINDOWS
from ..models import JudgeResult
from ..problem import CompilationOverrides, SourceFile
from .base import CompileOptions, Lang, LangCompileData, exe_name, split_args


class LangC(Lang):
    name = "C"
    extensions = ("c",)
    native = True

    async def _compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        options: CompileOptions,
    ) -> JudgeResult[LangCompileData]:
        output_path = self.artifact_path(src, exe_name(src.path))
        overrides = options.overrides or CompilationOverrides()
        compiler = overrides.compiler or self.settings.compilation.c_compiler
        args = overrides.compiler_args if overrides.compiler_args is not None else self.settings.compilation.c_args

        skip, digest = self.check_hash(src, output_path, f"{compiler}{args}{options.debug}", force)
        if skip:
            return JudgeResult.ok(LangCompileData(output_path, digest))

        cmd = [compiler, src.path, *split_args(args), "-o", output_path]
        if self.settings.runner.unlimited_stack and IS_WINDOWS:
            cmd.append("-Wl,--stack,268435456")
        if options.debug:
            cmd += ["-g", "-O0"]

        failure = await self._execute_compiler(cmd, token, options)
        if failure is not None:
            return failure
        return self._check_artifact(output_path, digest)

    def get_run_command(self, target: str, overrides: Optional[CompilationOverrides] = None) -> List[str]:
        return [target]
