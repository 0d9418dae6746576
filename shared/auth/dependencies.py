"""Dependencies de autenticación para FastAPI"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Dict
from app.core.config import settings
from shared.auth.jwt_handler import verify_token


security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Dict:
    '''Obtener usuario actual desde token JWT'''
    payload = await verify_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token inválido o expirado',
            headers={'WWW-Authenticate': 'Bearer'},
        )

    user_id = payload.get('sub') or payload.get('user_id')
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token inválido: falta user_id',
        )

    return {
        'user_id': user_id,
        'email': payload.get('email'),
        'role': payload.get('role', 'user')
    }


async def get_current_scanner(
    current_user: Dict = Depends(get_current_user)
) -> Dict:
    '''Verificar que el usuario tenga un rol de scanner (scanner, coordinator o admin)'''
    if current_user.get('role') not in settings.scanner_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Se requieren permisos de scanner'
        )
    return current_user
