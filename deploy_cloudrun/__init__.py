"""
deploy_cloudrun
---------------

Cloud Run 배포용 GitHub Action 패키지.
action input(이미지/소스, env, label, secret, 트래픽 분배, 추가 플래그)을
gcloud 명령으로 변환해 실행하고, 배포된 서비스 상태를 점검한다.
"""

__all__ = [
    "config",
    "commands",
    "orchestrator",
    "verify",
]
