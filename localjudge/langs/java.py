from pathlib import Path
from typing import List, Optional

from ..cancellation import CancellationToken
from ..models import JudgeResult
from ..problem import CompilationOverrides, SourceFile
from .base import CompileOptions, Lang, LangCompileData, split_args


class LangJava(Lang):
    name = "Java"
    extensions = ("java",)

    async def _compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        options: CompileOptions,
    ) -> JudgeResult[LangCompileData]:
        output_path = self.artifact_path(src, Path(src.path).stem + ".class")
        class_dir = Path(output_path).parent
        overrides = options.overrides or CompilationOverrides()
        compiler = overrides.compiler or self.settings.compilation.java_compiler
        args = overrides.compiler_args if overrides.compiler_args is not None else self.settings.compilation.java_args

        skip, digest = self.check_hash(src, output_path, f"{compiler}{args}", force)
        if skip:
            return JudgeResult.ok(LangCompileData(output_path, digest))

        failure = await self._execute_compiler(
            [compiler, *split_args(args), "-d", str(class_dir), src.path], token, options
        )
        if failure is not None:
            return failure
        return self._check_artifact(output_path, digest)

    def get_run_command(self, target: str, overrides: Optional[CompilationOverrides] = None) -> List[str]:
        overrides = overrides or CompilationOverrides()
        runner = overrides.runner or self.settings.compilation.java_runner
        run_args = overrides.runner_args if overrides.runner_args is not None else self.settings.compilation.java_run_args
        target_path = Path(target)
        return [runner, *split_args(run_args), "-cp", str(target_path.parent), target_path.stem]
