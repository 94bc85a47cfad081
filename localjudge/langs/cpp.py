import asyncio
import logging
from typing import List, Optional

from ..cancellation import CancellationToken
from ..config import IS_LINUX, IS_WINDOWS, RES_DIR
from ..models import JudgeResult
from ..problem import CompilationOverrides, SourceFile
from .base import CompileOptions, Lang, LangCompileData, exe_name, split_args

logger = logging.getLogger(__name__)


class LangCpp(Lang):
    name = "C++"
    extensions = ("cpp", "cc", "cxx", "c++")
    native = True

    async def _compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        options: CompileOptions,
    ) -> JudgeResult[LangCompileData]:
        compilation = self.settings.compilation
        output_path = self.artifact_path(src, exe_name(src.path))
        overrides = options.overrides or CompilationOverrides()
        compiler = overrides.compiler or compilation.cpp_compiler
        args = overrides.compiler_args if overrides.compiler_args is not None else compilation.cpp_args
        use_wrapper = options.can_use_wrapper and compilation.use_wrapper
        use_hook = use_wrapper and compilation.use_hook

        skip, digest = self.check_hash(
            src, output_path, f"{compiler}{args}{use_wrapper}{use_hook}{options.debug}", force
        )
        if skip:
            return JudgeResult.ok(LangCompileData(output_path, digest))

        compiler_args = split_args(args)
        if self.settings.runner.unlimited_stack and IS_WINDOWS:
            compiler_args.append("-Wl,--stack,268435456")
        if options.debug:
            compiler_args += ["-g", "-O0"]

        compile_commands: List[List[str]] = []
        post_commands: List[List[str]] = []
        if use_wrapper:
            obj = f"{output_path}.o"
            wrapper_obj = f"{output_path}.wrapper.o"
            link_objects = [obj, wrapper_obj]
            compile_commands += [
                [compiler, *compiler_args, src.path, "-c", "-o", obj],
                [compiler, "-fPIC", "-c", str(RES_DIR / "wrapper.cpp"), "-o", wrapper_obj],
            ]
            if use_hook:
                hook_obj = f"{output_path}.hook.o"
                link_objects.append(hook_obj)
                compile_commands.append(
                    [compiler, "-fPIC", "-Wno-attributes", "-c", str(RES_DIR / "hook.cpp"), "-o", hook_obj]
                )
            post_commands += [
                [compilation.objcopy, "--redefine-sym", "main=original_main", obj],
                [compiler, *compiler_args, *link_objects, "-o", output_path, *(["-ldl"] if IS_LINUX else [])],
            ]
        else:
            compile_commands.append([compiler, *compiler_args, src.path, "-o", output_path])

        # Object files are independent; the rename and link steps are not
        failures = await asyncio.gather(*(self._execute_compiler(cmd, token, options) for cmd in compile_commands))
        failure = next((f for f in failures if f is not None), None)
        if failure is not None:
            return failure
        for cmd in post_commands:
            failure = await self._execute_compiler(cmd, token, options)
            if failure is not None:
                return failure

        logger.debug("Compiled %s to %s", src.path, output_path)
        return self._check_artifact(output_path, digest)

    def get_run_command(self, target: str, overrides: Optional[CompilationOverrides] = None) -> List[str]:
        return [target]
